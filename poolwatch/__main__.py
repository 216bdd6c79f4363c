from poolwatch.main import main

raise SystemExit(main())
