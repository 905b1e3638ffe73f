from selfca.cli import main

raise SystemExit(main())
